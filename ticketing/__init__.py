"""dNFT event ticketing service."""
