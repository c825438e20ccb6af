from tickthrottle.cli import main

main()
