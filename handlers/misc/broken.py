handler = (
