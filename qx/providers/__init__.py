"""
LLM providers for qx
"""
