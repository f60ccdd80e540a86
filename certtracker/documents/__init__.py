"""Company documents stored in blob storage."""
