"""
Prompt contract between the bot and the model.

- template: renders the user prompt (evidence + output contract)
- response: extracts the <comments>, <command> and <diff> blocks back out
"""
