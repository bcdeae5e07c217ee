"""HTTP surface for classora-backup."""
