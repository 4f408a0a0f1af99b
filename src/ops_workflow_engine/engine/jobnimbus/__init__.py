"""JobNimbus API integration."""
