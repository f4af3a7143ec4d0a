"""
Review Markup - an image markup editor for game asset reviews.

Built with PyQt6. Reviewers draw rectangles, circles, arrows, freehand
strokes, highlights and text labels on screenshots or video frames; the
marks are stored through the review server.
"""

__version__ = "1.0.0"
__author__ = "Review Markup Team"
