#!/usr/bin/env python3
"""Turns IP addresses and CIDR networks provided on stdin (or in a file) into individual IP addresses, one per line.  Works for both ipv4 and ipv6."""

#Copyright William Stearns <william.l.stearns@gmail.com>
#Released under the GPL.


__version__ = '0.4'

__author__ = 'William Stearns'
__copyright__ = 'Copyright 2016-2024, William Stearns'
__credits__ = ['William Stearns']
__email__ = 'william.l.stearns@gmail.com'
__license__ = 'GPL 3.0'
__maintainer__ = 'William Stearns'
__status__ = 'Production'				#Prototype, Development or Production


#Samples:
#	cidrex input.txt
#	cidrex -4 input.txt
#	cat input.txt | cidrex -6


#======== External libraries
import argparse
import io
import ipaddress			#IP address/network objects and functions
import os
import sys				#Used for reading from stdin/writing to stdout
from typing import Iterator, List, Optional, TextIO, Tuple, Union


IPAddr = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNet = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


#======== Global variables
Devel = False


class InvalidLineError(ValueError):
	"""Raised when a line is neither an IP address nor address/prefixlen."""

	def __init__(self, line: str):
		#Undecodable input bytes arrive as surrogates; show them as \xNN so stderr can always encode the message
		shown_line = line.encode('utf8', 'surrogateescape').decode('utf8', 'backslashreplace')
		super().__init__('invalid IP or CIDR: ' + shown_line)
		self.line = line


#======== Functions
def debug_out(output_string: str) -> None:
	"""Send debuging output to stderr."""

	if Devel:
		sys.stderr.write(output_string + '\n')
		sys.stderr.flush()


def parse_line(line: str) -> Union[IPAddr, IPNet]:
	"""Return an address object if line is a single IP address, or a network object if it's address/prefixlen.  Raises InvalidLineError otherwise."""

	if '%' in line:										#Zone identifiers (fe80::1%eth0) are not accepted
		raise InvalidLineError(line)

	try:
		return ipaddress.ip_address(line)
	except ValueError:
		pass

	if line.count('/') == 1:
		prefix_str = line.split('/')[1]
		#ip_network also takes netmasks and hostmasks after the slash; we only want a prefix length.
		if prefix_str.isascii() and prefix_str.isdigit():
			try:
				return ipaddress.ip_network(line, strict=False)			#strict=False masks off any host bits
			except ValueError:
				pass

	raise InvalidLineError(line)


def increment_address(address: IPAddr) -> Optional[IPAddr]:
	"""Return the address one above the supplied one, or None if the supplied address is the last in its address space."""

	octets = bytearray(address.packed)							#Copy; the original address object is never touched

	for index in range(len(octets) - 1, -1, -1):						#Least significant byte first
		octets[index] = (octets[index] + 1) & 0xFF
		if octets[index] != 0:								#No carry, done
			return address.__class__(bytes(octets))

	#Carried off the top byte: 255.255.255.255 or ffff:...:ffff has no successor
	return None


def enumerate_range(network: IPNet) -> Iterator[IPAddr]:
	"""Yield every address in network in ascending order, network address and broadcast address included."""

	current: Optional[IPAddr] = network.network_address
	last_address: IPAddr = network.broadcast_address

	while current is not None:
		yield current
		if current == last_address:
			break
		current = increment_address(current)


def expand_line(line: str) -> Iterator[IPAddr]:
	"""Yield the address(es) described by a single input line."""

	parsed = parse_line(line)
	if isinstance(parsed, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
		yield parsed
	else:
		yield from enumerate_range(parsed)


def address_family(address: IPAddr) -> int:
	"""Returns 4 or 6.  Decided by the length of the address, so ::ffff:a.b.c.d stays an ipv6 address."""

	if len(address.packed) == 4:
		return 4
	return 6


def want_address(address: IPAddr, include_ipv4: bool, include_ipv6: bool) -> bool:
	"""True if this address should be printed under the requested family filter."""

	family = address_family(address)
	return (include_ipv4 and family == 4) or (include_ipv6 and family == 6)


def filter_flags(ipv4_flag: bool, ipv6_flag: bool) -> Tuple[bool, bool]:
	"""Turn the -4 and -6 command line flags into (include_ipv4, include_ipv6).  Neither or both means both."""

	if ipv4_flag == ipv6_flag:
		return True, True
	return ipv4_flag, ipv6_flag


def process_stream(in_h: TextIO, out_h: TextIO, include_ipv4: bool, include_ipv6: bool) -> int:
	"""Expand every line in in_h, writing the wanted addresses to out_h.  Returns the number of lines that could not be parsed."""

	bad_lines = 0

	for InLine in in_h:
		InLine = InLine.rstrip('\n')
		if InLine.endswith('\r'):
			InLine = InLine[:-1]

		try:
			for Address in expand_line(InLine):
				if want_address(Address, include_ipv4, include_ipv6):
					out_h.write(str(Address) + '\n')
		except InvalidLineError as err:
			sys.stderr.write(str(err) + '\n')
			bad_lines += 1

	return bad_lines


def main(argv: Optional[List[str]] = None) -> int:
	"""Command line driver; returns the process exit code."""

	global Devel

	parser = argparse.ArgumentParser(
		prog='cidrex',
		description='cidrex version ' + str(__version__) + ': expand IP addresses and CIDR ranges into individual addresses.',
		epilog='Examples:\n  cidrex input.txt\n  cidrex -4 input.txt\n  cat input.txt | cidrex -6',
		formatter_class=argparse.RawDescriptionHelpFormatter)
	parser.add_argument('-4', '--ipv4', help='Print only IPv4 addresses', required=False, default=False, action='store_true')
	parser.add_argument('-6', '--ipv6', help='Print only IPv6 addresses', required=False, default=False, action='store_true')
	parser.add_argument('-d', '--devel', help='Enable development/debug statements', required=False, default=False, action='store_true')
	parser.add_argument('filename', help='File from which to read addresses and networks (default: stdin)', nargs='?', default=None)
	cl_args = vars(parser.parse_args(argv))

	Devel = cl_args['devel']

	include_ipv4, include_ipv6 = filter_flags(cl_args['ipv4'], cl_args['ipv6'])
	debug_out('Including ipv4: ' + str(include_ipv4) + ', including ipv6: ' + str(include_ipv6))

	close_input = False
	if cl_args['filename'] in ('-', None):
		debug_out('Reading from stdin.')
		in_h = sys.stdin
		if isinstance(in_h, io.TextIOWrapper):
			#Bad bytes become a bad line rather than a decode error; lines end only at \n
			in_h.reconfigure(encoding="utf8", errors='surrogateescape', newline='\n')
	else:
		debug_out('Reading from file ' + cl_args['filename'])
		try:
			in_h = open(cl_args['filename'], 'r', encoding="utf8", errors='surrogateescape', newline='\n')	# pylint: disable=consider-using-with
		except OSError as err:
			sys.stderr.write('Unable to open ' + str(cl_args['filename']) + ': ' + str(err) + '\n')
			return 1
		close_input = True

	out_h = sys.stdout
	try:
		bad_lines = process_stream(in_h, out_h, include_ipv4, include_ipv6)
		out_h.flush()
	except BrokenPipeError:
		#Downstream reader went away (cidrex 0.0.0.0/0 | head).  Point stdout at /dev/null so the interpreter's own flush at exit doesn't complain.
		devnull = os.open(os.devnull, os.O_WRONLY)
		os.dup2(devnull, sys.stdout.fileno())
		return 0
	except OSError as err:
		sys.stderr.write('Error processing input: ' + str(err) + '\n')
		return 1
	finally:
		if close_input:
			in_h.close()

	if bad_lines:
		debug_out(str(bad_lines) + ' input line(s) were not recognized as IP addresses or cidr networks')

	return 0


#======== Main
if __name__ == "__main__":
	sys.exit(main())
