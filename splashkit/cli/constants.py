"""Constants for the splashkit CLI."""

MAX_LOGIN_ATTEMPTS = 3
LOGIN_TIMEOUT_SECONDS = 600
