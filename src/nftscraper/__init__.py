"""Retrieve NFT metadata and images for a range of token IDs"""

LOGGER_NAME = "nftscraper"
