"""
Rendiff HLS command-line interface
"""
