"""ANSI escape codes used to colour terminal output."""
red = "\033[31m"
green = "\033[32m"
yellow = "\033[33m"
blue = "\033[34m"
magenta = "\033[35m"
cyan = "\033[36m"
grey = "\033[90m"
reset = "\033[0m"
