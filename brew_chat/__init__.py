"""Brew chat — roleplay conversations over a scene, characters and mods."""
