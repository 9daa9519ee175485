class BetaFeatures:
    """Values for the `anthropic-beta` opt-in header."""
    COMPUTER_USE = "computer-use-2024-10-22"
    PROMPT_CACHING = "prompt-caching-2024-07-31"
    MESSAGE_BATCHES = "message-batches-2024-09-24"
    PDF_SUPPORT = "pdfs-2024-09-25"
    TOOLS = "tools-2024-04-04"
