"""memecaption: image macro captioning engine.

Render ordered text captions onto template images and encode the result.
Templates and fonts are loaded lazily from two directories and shared
across concurrent requests. Requests can also be declared in YAML
manifests.
"""
