"""
Reward eligibility & claim processing engine.

Entry points:
  - reward_engine.container.build_reward_engine(settings)
  - reward_engine.container.get_reward_engine_facade()
"""

__version__ = "0.1.0"
