"""Medicare Part D data tool.

This package exposes CMS Medicare Part D drug spending and prescriber
data (data.cms.gov) as a single action-dispatched tool, returning
human-readable text for a conversational client.
"""
