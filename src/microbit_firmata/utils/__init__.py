"""Pure helpers shared by the protocol layer."""
