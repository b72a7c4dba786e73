"""
CI repair bot.

On a failing pull request workflow run this package:
- checks the run is eligible for an automated fix
- gathers failed jobs, diffs and log artifacts
- asks an LLM (behind a TensorZero gateway) for a comment and an optional diff
- applies the diff in a throw-away clone and opens a follow-up PR
- records inference -> PR associations so merge/close outcomes can be fed back
"""

__version__ = "0.3.0"
