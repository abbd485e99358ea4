"""Shared constants for the gatekeeper bot."""

# Verification sessions are readable for a fixed window after creation.
SESSION_TTL_SECONDS = 30 * 60

# Role names as they exist in the guild.
VERIFIED_ROLE = "Verified+"
APPRENTICE_ROLE = "Apprentice"
GUARDIAN_ROLE = "Guardian"
MODERATOR_ROLES = ("Aztec Labs Team", "AzMod", "Admin")

# Validator liveness.
LIVENESS_WINDOW_SECONDS = 24 * 60 * 60
MISS_PERCENTAGE_THRESHOLD = 20.0

# Node connection modal.
DEFAULT_VALIDATOR_PORT = 8080
