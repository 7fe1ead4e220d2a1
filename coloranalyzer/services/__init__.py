"""
Color Analyzer Services
Intake, previews, dispatch and projection of image analysis batches.
"""
