"""
Interview Engine - orchestration and evaluation for technical interviews

Runs two interview styles: fixed-template linear sessions graded in the
background, and multi-phase panel sessions graded as the candidate answers.
"""

__version__ = "0.1.0"
