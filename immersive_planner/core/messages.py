"""
messages.py
------------
User-facing (Hebrew) messages surfaced by the planner and the assistant.
"""

# Plan state
SAVE_FAILED = "שגיאה בשמירת תכנית השיעור"
LOAD_FAILED = "שגיאה בטעינת תכנית השיעור"

# Assistant
NO_RESPONSE = "לא התקבלה תשובה מהמערכת"
NO_SUGGESTION = "לא התקבלה הצעה מהמערכת"
INVALID_RESPONSE = "תשובת המערכת לא תקינה"
NO_JSON_FOUND = "לא נמצא תוכן JSON בתשובה"
UNKNOWN_FIELD = "המערכת ניסתה לעדכן שדה שאינו קיים בתכנית"
QUOTA_EXCEEDED = "חרגת ממכסת השימוש בשירות הבינה המלאכותית. נסה שוב מאוחר יותר"
NETWORK_ERROR = "לא ניתן להתחבר לשירות הבינה המלאכותית. בדוק את החיבור ונסה שוב"
SEND_FAILED = "שגיאה בשליחת ההודעה"
SUGGESTION_FAILED = "שגיאה בקבלת הצעה"
APPLY_FAILED = "שגיאה בשמירת השינויים"


def field_updated(label: str) -> str:
    return f'עודכן השדה "{label}" לערך החדש'
