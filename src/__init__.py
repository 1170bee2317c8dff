"""Document capture OCR system.

Conditions captured document images with OpenCV, recognizes text with
Tesseract, detects tables and extracts structured contact records from
business cards.
"""
