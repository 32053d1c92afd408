from asciiscreen.main import main

main()
