"""Document structuring engine.

Turns raw OCR output (plain text or positioned fragments) into invoice
line-item tables or flat medical bill and payslip field sets, each with a
confidence score.
"""
