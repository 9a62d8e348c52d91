"""
Cross-provider matching

Key components:
- utils.name_normalizer: Team name normalization and scoring
- matchers.game_matcher: Odds-to-game and pick-to-game matching
"""
