DEFAULT_CATEGORIES = [
    {"name": "Salary", "type": "income"},
    {"name": "Freelance", "type": "income"},
    {"name": "Investment", "type": "income"},
    {"name": "Food", "type": "expense"},
    {"name": "Transportation", "type": "expense"},
    {"name": "Entertainment", "type": "expense"},
    {"name": "Utilities", "type": "expense"},
    {"name": "Healthcare", "type": "expense"},
    {"name": "Shopping", "type": "expense"},
]
