"""
Services module for provider access, aggregation and settlement.

This module organizes services into:
- core: Provider clients (ESPN, The Odds API, BallDontLie), the shared
  response cache and the wager store
- sync: Team name normalization and game matching
- aggregator_service: Unified games per (sport, date)
- resolver_service: Automatic settlement of pending picks
"""
