"""Collection names of the persisted state layout."""

TEAMS = "teams"
MATCHES = "matches"
PARTICIPANTS = "users"
TRANSFER_EVENTS = "transferEvents"
LEADERBOARD = "leaderboard"
SETTINGS = "settings"
