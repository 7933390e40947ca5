"""Client-only mini-games: matching pairs and a fixed-question quiz.

Engines are pure state transitions; sessions are stored and driven by
`keepsake.game_store` and the API routes.
"""
