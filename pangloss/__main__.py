from pangloss.execution.cli import main

main()
