"""
Browser automation for marketplace sessions.

Modules:
- session_bootstrapper: Chromium launch and authenticated context creation
- cookies: captured-cookie normalization and readback summaries
- selectors: ordered selector fallback chains
- dom_interaction: dropdowns, toggles and file inputs
"""
