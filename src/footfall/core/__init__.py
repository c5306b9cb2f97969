"""Analytics domain: classification, recording, querying and reporting."""
