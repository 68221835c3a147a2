import os
import sys
import pytest
from dotenv import load_dotenv

if __name__ == "__main__":
    # Variables d'environnement de test (Mongo/Redis non requis : les tests utilisent des fakes)
    load_dotenv(dotenv_path=".env")

    # Dossier cible des tests
    test_path = os.path.join(os.path.dirname(__file__), "tests")

    # Lancement de pytest ; les tests async reposent sur pytest-asyncio
    exit_code = pytest.main([test_path, "-v", "-p", "no:cacheprovider"])
    sys.exit(exit_code)
