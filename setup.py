from setuptools import setup, find_packages
README = open('README.md', 'r').read()

setup(
      name='classicstun',
      version='0.1.0',
      packages=find_packages(include=['classicstun', 'classicstun.*']),
      install_requires=['Twisted', 'zope.interface', 'constantly'],
      extras_require={'test': ['pytest']},
      entry_points={
          'console_scripts': [
              'stunclassify = classicstun.scripts.stunclassify:run',
              ],
          },

      license='MIT',

      description="RFC 3489 STUN client and NAT type classifier",
      classifiers=[
                   'Programming Language :: Python',
                   'Programming Language :: Python :: 3',
                   'Framework :: Twisted',
                   'Intended Audience :: Developers',
                   'Intended Audience :: Information Technology',
                   'Intended Audience :: System Administrators',
                   'License :: OSI Approved :: MIT License',
                   'Operating System :: OS Independent',
                   'Topic :: Internet',
                   'Topic :: System :: Networking',
                   'Topic :: Software Development :: Libraries :: Python Modules',
                   ],
      long_description=README,
      long_description_content_type='text/markdown',
      )
