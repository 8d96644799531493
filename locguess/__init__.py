"""
LocGuess - Photo location guessing game

A player takes a photo, an object-detection model lists what is in it,
and the game remembers where the photo was taken. Someone else gets the
item list (shared as a URL) and has to walk to the spot.

The package provides:
- The mode state machine (Photo -> Items -> Guessing)
- Camera and geolocation lifecycle management
- Detection filtering and photo thumbnails
- Challenge token encoding/decoding
- A REST API and CLI around the above
"""

__version__ = "0.1.0"
