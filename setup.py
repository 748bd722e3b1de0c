from setuptools import find_packages, setup

# Installation :
#   pip install -e .
#   pip install -e .[test]   (dépendances des tests)

setup(
    name='GestionCommandes',
    version='1.0',
    description="Client de gestion des commandes d'imprimerie : formulaires, visibilité par rôle, historique",
    author='Sebastien Cangemi',
    author_email='contact@example.com',
    url='https://example.com/GestionCommandes',
    packages=find_packages(include=['gestion_commandes', 'gestion_commandes.*']),
    python_requires='>=3.10',
    install_requires=[
        'httpx>=0.24',
        'pydantic>=2',
        'tzdata; platform_system == "Windows"',
    ],
    extras_require={
        'test': ['pytest', 'pytest-asyncio', 'fastapi'],
    },
    entry_points={
        'console_scripts': ['gestion-commandes=gestion_commandes.__main__:main'],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
)
