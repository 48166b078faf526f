"""Vietnamese lottery ticket checker: result scraping, ticket OCR and prize matching."""
