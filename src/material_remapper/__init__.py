"""Match materials by name and remap model and prefab material references."""
