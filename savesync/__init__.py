"""
Selective download of per-game save data from Google Drive.
"""
