"""
trojan.cli — command-line entry points (typer).
"""
