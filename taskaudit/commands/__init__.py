"""Click commands for taskaudit."""
