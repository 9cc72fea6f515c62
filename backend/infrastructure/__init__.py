"""
In-process infrastructure: response cache and outbound API metrics
"""
