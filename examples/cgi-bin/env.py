"""Print the CGI environment and the request body."""
import os
import sys

body = sys.stdin.buffer.read()
print("CGI program error output example", file=sys.stderr)

out = sys.stdout
out.write("Content-Type: text/plain; charset=utf-8\n")
out.write("X-Body-Length: %d\n" % len(body))
out.write("\n")
for key in sorted(os.environ):
    out.write("%s=%s\n" % (key, os.environ[key]))
out.write("\n")
out.flush()
sys.stdout.buffer.write(body)
