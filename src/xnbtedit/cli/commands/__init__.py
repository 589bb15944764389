"""Subcommands of ``xnbtedit``.

- config: inspect and edit the configuration file
"""
