from setuptools import find_packages, setup

package_name = 'saver_relay'

setup(
    name='saver-relay',
    version='1.0.0',
    packages=find_packages(exclude=['test']),
    package_data={package_name: ['panel/index.html']},
    python_requires='>=3.10',
    install_requires=[
        'websockets>=13.0',
        'pydantic>=2.0',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
            'requests',
        ],
    },
    zip_safe=False,
    maintainer='agi',
    maintainer_email='arielfayol1@gmail.com',
    description='WebSocket relay between the saver browser extension and its controller panel',
    license='Apache-2.0',
    entry_points={
        'console_scripts': [
            'saver-relay = saver_relay.server:main',
        ],
    },
)
