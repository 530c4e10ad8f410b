"""
Date column inference: used by the ranking runner when no date column is given.
The system searches the dataset for a date column in this priority order.
No hardcoded column name.
"""
DATE_COLUMN_PRIORITY = [
    "order_date",
    "order date",
    "transaction_date",
    "date",
    "created_at",
    "timestamp",
]

# Share of parseable values a column needs before it is treated as a date
MIN_PARSE_RATIO = 0.5
