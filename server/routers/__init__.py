"""HTTP routers: health checks and the leaderboard."""
