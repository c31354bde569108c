from mpr.cli import main

main()
