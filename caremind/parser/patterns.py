"""Regex patterns for schedule text parsing."""

import re

# 08:00, 8:30, 8h, 20h30
TIME_PATTERN = re.compile(r'\b(\d{1,2})(?::|h)(\d{2})?\b', re.IGNORECASE)

DATETIME_FORMATS = ("%Y-%m-%d %H:%M", "%d/%m/%Y %H:%M")

DAILY_PATTERNS = [
    re.compile(r'^(?:daily|every\s+day|di[aá]rio|todos\s+os\s+dias)\b', re.IGNORECASE),
]

# Every N hours
HOURS_PATTERNS = [
    re.compile(r'^every\s+(\d+(?:\.\d+)?)\s*(?:hours?|hrs?|h)\b', re.IGNORECASE),
    re.compile(r'^(?:a\s+)?cada\s+(\d+(?:[.,]\d+)?)\s*(?:horas?|h)\b', re.IGNORECASE),
]

# Every N days
DAYS_PATTERNS = [
    re.compile(r'^every\s+(\d+)\s+days?\b', re.IGNORECASE),
    re.compile(r'^every\s+other\s+day\b', re.IGNORECASE),
    re.compile(r'^(?:a\s+)?cada\s+(\d+)\s+dias?\b', re.IGNORECASE),
    re.compile(r'^dias\s+alternados\b', re.IGNORECASE),
]

WEEKDAY_SPLIT = re.compile(r'[\s,;/]+')

# 0 = Sunday ... 6 = Saturday
WEEKDAY_NAMES = {
    'sunday': 0, 'sun': 0, 'domingo': 0, 'dom': 0,
    'monday': 1, 'mon': 1, 'segunda': 1, 'seg': 1,
    'tuesday': 2, 'tue': 2, 'tues': 2, 'terca': 2, 'terça': 2, 'ter': 2,
    'wednesday': 3, 'wed': 3, 'quarta': 3, 'qua': 3,
    'thursday': 4, 'thu': 4, 'thurs': 4, 'quinta': 4, 'qui': 4,
    'friday': 5, 'fri': 5, 'sexta': 5, 'sex': 5,
    'saturday': 6, 'sat': 6, 'sabado': 6, 'sábado': 6, 'sab': 6,
}

WEEKDAY_GROUPS = {
    'weekdays': [1, 2, 3, 4, 5],
    'weekends': [0, 6],
    'weekend': [0, 6],
}
