"""Explain relay: streams plain-language code explanations."""
