"""
Spoken feedback: speech service adapters, audio players and the dispatcher that
keeps playback strictly sequential.
"""
